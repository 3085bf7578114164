from setuptools import setup

version = '0.1'

with open("README.md", "r", encoding="utf-8") as f:
    long_descr = f.read()

setup(
    name='pyavrbridge',
    packages=['pyavrbridge'],
    version=version,
    license='Apache 2.0',
    description='Control Yamaha network AV receivers as generic media players',
    long_description=long_descr,
    long_description_content_type='text/markdown',
    keywords=['Yamaha', 'YNC', 'AV Receiver', 'Media Player'],
    python_requires='>=3.10',
    install_requires=[
        "aiohttp>=3.8.3",
        "xmltodict>=0.11.0"
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Home Automation',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3.10'
    ],
)
