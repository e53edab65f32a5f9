from setuptools import setup, find_packages
from pathlib import Path

HERE = Path(__file__).parent

def read_requirements():
    req_path = HERE / "requirements.txt"
    if not req_path.exists():
        return []
    lines = req_path.read_text(encoding="utf-8").splitlines()
    reqs = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        # ignore editable installs / constraints / local paths
        if line.startswith("-"):
            continue
        reqs.append(line)
    return reqs

setup(
    name="Footfall",
    version="0.1.0",
    description="Visitor-traffic estimation and multi-seasonal forecasting from transaction logs",
    packages=find_packages(exclude=["*.tests", "*.tests.*"]),
    include_package_data=True,
    install_requires=read_requirements(),
    extras_require={"test": ["pytest>=7"]},
    python_requires=">=3.10",
)
