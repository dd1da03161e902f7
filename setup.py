from setuptools import setup, find_packages

setup(
    name="bam-error-strat",
    version="0.1.0",
    packages=find_packages(where = "src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "pandas",
        "PyYAML",
        "Jinja2",
    ],
    extras_require={
        "test": ["pytest"],
    },
entry_points={
            "console_scripts": [
                "bam-error-strat=bam_error_strat.cli:main",
            ],
    },
    description="Streaming per-base error metrics stratified by read-base context",
)
