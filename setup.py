import setuptools
from pathlib import Path

ROOT = Path(__file__).parent


def read_requirements(filename: str = "requirements.txt") -> list[str]:
    req_path = ROOT / filename
    if not req_path.exists():
        return []
    reqs: list[str] = []
    for line in req_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        reqs.append(line)
    return reqs


readme = ROOT / "README_PYPI.md"
long_description = readme.read_text(encoding="utf-8") if readme.exists() else ""

setuptools.setup(
    name="sepconv",
    version="0.1.0a0",  # PEP 440 compliant
    author="keywind",
    description=(
        "Forward and backward core of a depthwise-separable 2D convolution "
        "layer on NumPy, with optional vectorized and native ctypes helpers."
    ),
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="Apache-2.0",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=read_requirements(),
    extras_require={
        "test": read_requirements("requirements-test.txt"),
    },
    include_package_data=True,
    zip_safe=False,
    package_data={
        "sepconv": [
            "infrastructure/native/python/*.dll",
            "infrastructure/native/python/*.so",
            "infrastructure/native/python/*.dylib",
        ],
    },
)
