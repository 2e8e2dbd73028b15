from setuptools import setup, find_packages

setup(
    name='thoughtforge',
    version='1.0',
    description='Beam search exploration, thought graph aggregation and iterative research over LLM-generated thoughts.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    install_requires=[
        'networkx',
        'pyyaml',
        # Core runtime deps used by the codebase
        'aiohttp',                 # async HTTP for LLM + Semantic Scholar
        'tokencost',               # token cost accounting
        'tiktoken',                # tokenization backend for tokencost
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
