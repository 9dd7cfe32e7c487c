from setuptools import setup, find_packages

setup(
    name="cliprelay",
    version="0.1.0",
    description="Relay clipboard prompts to a local or hosted LLM and type the streamed answer back",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "typer>=0.9.0",
        "python-dotenv>=1.0.0",
        "mistralai>=1.2.0,<2",
        "pyperclip>=1.8.2",
        "pynput>=1.7.6",
    ],
    extras_require={
        "local": ["llama-cpp-python>=0.2.80"],
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "cliprelay=cliprelay.main:cliprelay",
        ],
    },
    python_requires=">=3.10",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
