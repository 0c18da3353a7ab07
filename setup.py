# setup.py
from setuptools import setup, find_packages

setup(
    name="aliembed",
    version="0.1.0",
    description="Асинхронный сервис превью ссылок AliExpress для чатов",
    packages=find_packages(exclude=("tests", "tests.*")),  # найдёт папку aliembed
    package_data={"aliembed": ["templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.9",
        "click>=8.1",
        "jinja2>=3.1",
        "playwright>=1.40",
        "pydantic>=2.5",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "beautifulsoup4>=4.12",
        ],
    },
    entry_points={"console_scripts": ["aliembed=aliembed.cli:cli"]},
    python_requires=">=3.11",
)
