from pathlib import Path

from setuptools import find_packages, setup


HERE = Path(__file__).parent
with (HERE / "requirements.txt").open("r") as f:
    INSTALL_REQUIRES = [x.strip() for x in f.readlines() if x.strip()]
with (HERE / "test_requirements.txt").open("r") as f:
    TESTS_REQUIRE = [x.strip() for x in f.readlines() if x.strip()]
with (HERE / "rpmrecipe" / "version.py").open("r") as f:
    version = {}
    exec(f.read(), version)
    VERSION = version["__version__"]


setup(
    name="rpmrecipe",
    version=VERSION,
    description="Package and CLI tool for resolving and building RPM-style packaging recipes",
    # Possible options are at https://pypi.python.org/pypi?%3Aaction=list_classifiers
    classifiers=[
        "Development Status :: 3 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Build Tools",
        "Topic :: System :: Software Distribution",
    ],
    license="MIT",
    platforms=["GNU/Linux"],
    keywords="rpm spec packaging",
    packages=find_packages(include=["rpmrecipe", "rpmrecipe.*"]),
    include_package_data=True,
    package_data={},
    zip_safe=False,
    python_requires=">=3.10",
    install_requires=INSTALL_REQUIRES,
    tests_require=TESTS_REQUIRE,
    extras_require={"test": TESTS_REQUIRE},
    entry_points={"console_scripts": ["rpmrecipe = rpmrecipe.cli:cli"]},
)
