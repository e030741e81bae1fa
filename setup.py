from setuptools import setup


setup(
    name="autoreport",
    version="0.3.0",
    description="Turn uploaded spreadsheets into mapped, validated and summarised recap reports",
    packages=["autoreport"],
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest", "numpy"],
    },
    entry_points={
        "console_scripts": [
            "autoreport=autoreport.cli:main",
        ]
    },
)
