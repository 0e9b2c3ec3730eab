from setuptools import find_packages, setup

setup(
    name="deploy-hook",
    version="0.1.0",
    packages=find_packages(
        include=[
            "hook_common",
            "hook_common.*",
            "hook_persistence",
            "hook_persistence.*",
            "hook_jenkins",
            "hook_jenkins.*",
            "hook_server",
            "hook_server.*",
            "hook_admin",
            "hook_admin.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "aiosqlite>=0.19.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-xdist>=3.3.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "hook-server=hook_server.__main__:main",
            "hook-admin=hook_admin.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
