from setuptools import setup, find_packages

setup(
    name="arrestlead",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pyyaml",
        "pydantic>=2",
        "pymongo",
        "requests",
        "beautifulsoup4",
        "python-dateutil",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "arrestlead=arrestlead.cli:main",
        ],
    },
)
