"""
setup.py

mxformat - Matrix formatted message body parsing and rendering
"""

from typing import List, Optional, Union

from setuptools import find_packages, setup

__version__: str = ""
with open("mxformat/__version__.py", encoding="utf-8") as _f:
    exec(_f.read())  # noqa: S102


def load_requirements(file_list: Optional[Union[str, List[str]]] = None) -> List[str]:
    if file_list is None:
        file_list = ["requirements/base.in"]
    if isinstance(file_list, str):
        file_list = [file_list]
    requirements: List[str] = []
    for file in file_list:
        with open(file, encoding="utf-8") as f:
            requirements.extend(f.readlines())
    requirements = [
        req.strip()
        for req in requirements
        if req.strip() and not req.startswith("#") and not req.startswith("-")
    ]
    return requirements


setup(
    name="mxformat",
    description="Parses Matrix formatted message bodies into annotated text for rendering.",
    long_description=open("README.md", encoding="utf-8").read(),  # noqa: SIM115
    long_description_content_type="text/markdown",
    keywords="Matrix HTML chat message formatting",
    python_requires=">=3.9.0,<3.14",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Communications :: Chat",
        "Topic :: Text Processing :: Markup :: HTML",
    ],
    packages=find_packages(include=["mxformat", "mxformat.*"]),
    version=__version__,
    install_requires=load_requirements(),
    extras_require={
        "test": load_requirements("requirements/test.in"),
    },
    entry_points={
        "console_scripts": ["mxformat=mxformat.cli:cli"],
    },
    package_dir={"mxformat": "mxformat"},
    package_data={"mxformat": ["py.typed"]},
)
