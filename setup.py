"""Setup script for lab-results package following Cosmic Python pattern."""

from setuptools import setup, find_namespace_packages

setup(
    name="lab-results",
    version="1.0.0",
    description="Laboratory sample lifecycle - intake, results, validation and patient notification",
    author="Lab Results Team",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["lab_results*", "shared*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "uvicorn[standard]",
        "pydantic>=2",
        "sqlalchemy>=2,<2.1",
        "psycopg2-binary",
        "redis",
        "email-validator",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-cov",
            "httpx",
            "fakeredis",
        ],
        "dev": [
            "black",
            "flake8",
            "mypy",
            "pre-commit",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Healthcare Industry",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
    ],
)
