from setuptools import setup, find_packages

setup(
    name="site-health-engine",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "numpy>=1.20.0",
        "pyyaml>=5.4",        # For configuration files
        "pandas>=1.3.0",      # For tabular reports
        "matplotlib>=3.4.0",  # For map rendering
        "seaborn>=0.13.0",    # For issue summary charts
        "scipy>=1.7.0",       # For nearest-site search and heat density
    ],
    extras_require={
        'dev': [
            'pytest>=6.0.0',
            'black>=21.5b2',
            'mypy>=0.900',
        ],
    },
    description="Site health derivation, disaster impact simulation and geospatial visualization for distributed energy sites",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Topic :: Scientific/Engineering :: Energy",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    package_data={
        "sitehealth": ["py.typed"],
    },
    zip_safe=False,
)
