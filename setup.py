import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="excalisave",
    version="0.0.1",
    description="Keep Excalidraw drawings, the current drawing and their backups in sync across surfaces",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=[
        "databases[aiosqlite]>=0.6",
        "fastapi[all]>=0.100",
        "pydantic>=2.6",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "test": [
            "httpx",
            "pytest",
            "pytest-asyncio>=0.21",
            "pytest-mock",
        ],
    },
    keywords="excalidraw drawings autosave backups websocket",
)
