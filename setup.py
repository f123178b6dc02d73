from setuptools import setup, find_packages
from pathlib import Path

setup(
    name="review_annotation",
    version=Path("./review_annotation/VERSION").read_text().strip(),
    description="Annotations and threaded comments for media review",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"review_annotation": ["VERSION"]},
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "opencv-python",
        "easydict",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "review_annotation=review_annotation.cli:main",
        ],
    },
)
