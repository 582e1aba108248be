"""
market-mcp - マーケット分析アシスタント向け MCP コネクター統合のセットアップスクリプト
"""

import os

from setuptools import find_packages, setup


# README.mdの内容を読み込み
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), "README.md")
    if os.path.exists(readme_path):
        with open(readme_path, "r", encoding="utf-8") as f:
            return f.read()
    return ""


# requirements.txtから依存関係を読み込み
def read_requirements():
    requirements_path = os.path.join(os.path.dirname(__file__), "requirements.txt")
    if os.path.exists(requirements_path):
        with open(requirements_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
        # コメント行と空行を除外
        requirements = []
        for line in lines:
            line = line.strip()
            if line and not line.startswith("#"):
                requirements.append(line)
        return requirements
    return []


setup(
    name="market-mcp",
    version="0.1.0",
    author="Market MCP Team",
    description="マーケット分析アシスタント向け MCP コネクター統合",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=["market_mcp", "market_mcp.*"]),
    package_data={"market_mcp": ["config/*.json"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial :: Investment",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.11",
    install_requires=read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.24.0",
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "market-mcp=market_mcp.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
