"""Setup configuration for the Feed Relay service."""

from setuptools import setup, find_packages

setup(
    name="feedrelay",
    version="1.0.0",
    description="Webhook ingestion and content moderation relay for Discord",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={
        "feedrelay.moderation": ["default_lexicon.yml"],
        "feedrelay.web": ["manual_form.html"],
    },
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.4",
        "aiosqlite>=0.19",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
    entry_points={
        "console_scripts": [
            "feedrelay=feedrelay.main:main",
        ],
    },
)
