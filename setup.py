from setuptools import setup, find_packages

setup(
    name="platformq-voting",
    version="1.0.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "eth-account>=0.9.0",
        "eth-utils>=2.1.0",
        "rlp>=3.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy>=2.0.0",
        "httpx>=0.24.0",
        "fastapi>=0.100.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    python_requires=">=3.8",
    author="PlatformQ Team",
    description="Vote admission, signature verification and weighting core for PlatformQ governance",
)
