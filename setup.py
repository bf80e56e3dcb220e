from setuptools import setup, find_packages

setup(
    name="redis-bucket",
    version="0.1.0",
    packages=find_packages(include=["redis_bucket", "redis_bucket.*"]),
    python_requires=">=3.11",
    install_requires=[
        "redis>=5.0",
        "msgpack>=1.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "fastapi>=0.100",
        "starlette",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)
