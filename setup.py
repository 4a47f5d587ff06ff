from setuptools import setup, find_packages

# Read the contents of the README file
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name='phygecluster',
    version='0.1.0',
    description='Clustering of homologous sequences from BLAST or assembly files, with alignment, distance and strain-based pruning',
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        'pandas',  # For BLAST tables, strain files and TSV outputs
        'biopython',  # For sequence, alignment, SearchIO, ace and distance handling
        'numpy',  # For alignment statistics
        'tqdm',  # For progress bars
        'psutil',  # For workflow resource reports
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'phygecluster=phygecluster.cli:main',
            'run-cluster-workflow=phygecluster.workflows.cluster_workflow:main',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Topic :: Scientific/Engineering :: Bio-Informatics',
    ],
    python_requires='>=3.8',
)
