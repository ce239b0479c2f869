from setuptools import setup, find_packages

setup(
    name="catalog-recommendation-engine",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*", "alembic", "alembic.*"]),
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.15.0",
        "sqlalchemy>=1.4.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=0.19.0",
        "numpy>=1.21.0",
        "scikit-learn>=0.24.0",
        "httpx>=0.23.0",
        "alembic>=1.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=6.0.0",
            "pytest-cov>=2.0.0",
            "anyio>=3.0.0",
            "black>=21.0",
            "isort>=5.0.0",
            "mypy>=0.910",
            "flake8>=3.9.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "catalog-backfill=catalog_recommender.backfill:main",
        ],
    },
    python_requires=">=3.8",
    description="Content-based item recommendations from category embeddings",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
