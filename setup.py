from setuptools import setup, find_packages

setup(
    name="spar",
    version="0.1.0",
    description="Sparse Projected Averaged Regression for high-dimensional data",
    packages=find_packages("src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.25",
        "pandas",
        "scikit-learn>=1.2",
        "scipy",
        "tqdm"
    ],
    extras_require={
        "test": ["pytest"]
    }
)
