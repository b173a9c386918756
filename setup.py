from setuptools import setup, find_packages

setup(
    name="cognio-agents",
    version="0.1.0",
    description="Agent execution and step orchestration engine with CRM integrations",
    author="Cognio Team",
    packages=find_packages(),
    install_requires=[
        "pydantic>=2.0.0",
        "aiohttp>=3.8.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.0.0",
        ],
    },
    python_requires=">=3.8",
)
