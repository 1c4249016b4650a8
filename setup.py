from setuptools import setup, find_packages

setup(
    name="agentscript",
    version="0.1.0",
    description="A small pipeline DSL: pipe, parallel and conditional command execution",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["ascript"],
    package_data={"agentscript": ["grammar.lark"]},
    install_requires=[
        "lark",
        "pydantic>=2.0",
        "loguru>=0.7",
        "openai",
        "requests",
        "opentelemetry-api",
        "opentelemetry-sdk",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "ascript=ascript:main",
        ],
    },
    python_requires=">=3.10",
)
