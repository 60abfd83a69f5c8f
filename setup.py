from setuptools import setup, find_packages

setup(
    name="hiremind",
    version="0.1.0",
    packages=find_packages(include=["hiremind", "hiremind.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "python-dotenv>=1.0.0",
        "pydantic>=2.4.2",
        "pydantic-settings>=2.0.3",
        "structlog>=23.2.0",
        "openai>=1.0.0",
        "httpx>=0.25.0",
        "numpy>=1.24.0",
        "sqlmodel>=0.0.14",
        "sqlalchemy[asyncio]>=2.0.0",
        "aiosqlite>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.25.0",
        ],
    },
)
