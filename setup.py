import setuptools


def readme():
    with open('README.md', 'r') as fh:
        return fh.read()

def license():
    with open('LICENSE', 'r') as f:
        return f.read()

setuptools.setup(
    name="atlasseq",
    version="3.3",
    description="ATLAS-seq analysis: L1 insertion calling and matched random control",
    long_description=readme(),
    long_description_content_type="text/markdown",
    license=license(),
    keywords='ATLAS-seq L1 retrotransposition insertion MRC',
    packages=setuptools.find_namespace_packages(include=['atlasseq', 'atlasseq.*']),
    install_requires=[
        'pysam',
        'pybedtools',
        'xopen',
        'pandas',
        'PyYAML',
        'toml',
        'python-dateutil',
        'Levenshtein',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['atlasseq=atlasseq.atlasseq:main'],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.6',
    include_package_data=True,
    zip_safe=False,
)
