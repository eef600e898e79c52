from setuptools import setup, find_packages

setup(
    name="renewal-projection",
    version="1.0.0",
    description="Health insurance renewal projection engine",
    author="Renewal Projection Team",
    packages=find_packages(),
    install_requires=[
        "pandas>=2.0.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
