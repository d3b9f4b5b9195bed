import os.path
import re
from setuptools import setup

here = os.path.abspath(os.path.dirname(__file__))

# Read rather than import: importing the package needs NumPy
with open(os.path.join(here, "aesfile", "__init__.py")) as f:
    __version__ = re.search(r'^__version__ = "([^"]+)"', f.read(), re.M).group(1)

setup(
    name="aesfile",
    version=__version__,
    description="AES-128 file encryption implemented from scratch on NumPy",
    license="Apache 2.0",
    keywords=[
        "aes", "aes-128", "aes 128", "rijndael", "encryption", "decryption",
        "numpy", "symmetric", "cipher", "fips-197"
    ],
    packages=["aesfile"],
    long_description=open(os.path.join(here, "README.md")).read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Topic :: Security :: Cryptography",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: Implementation :: CPython",
    ],
    python_requires=">=3.8",
    install_requires=["numpy>=1.17"],
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": ["aesfile = aesfile.__main__:main"],
    },
)
