import os
from setuptools import setup, find_packages


def get_resource(name):
    with open(os.path.join(os.path.dirname(__file__), name)) as fh:
        return fh.read()


def process_reqs(reqs):
    """Drop blank lines and comments from a requirements file."""
    return [req.strip() for req in reqs
            if req.strip() and not req.strip().startswith('#')]


install_requires = process_reqs(
    get_resource('requirements.txt').splitlines())
tests_require = process_reqs(
    get_resource('dev_requirements.txt').splitlines())


setup(
    name="mrdb",
    version="0.1.0",
    description=("Map-Reduce over sqlite record stores"),
    license="MIT",
    packages=find_packages(exclude=['tests', 'examples']),
    install_requires=install_requires,
    extras_require={'test': tests_require},
    python_requires='>=3.8',
    zip_safe=True,
    entry_points={
        'console_scripts': ['mrdb = mrdb.step:main'],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Operating System :: POSIX',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'Programming Language :: Python :: 3',
    ],
    long_description=get_resource('README.md'),
    long_description_content_type='text/markdown',
)
