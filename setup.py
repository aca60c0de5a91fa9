import io
import re
from setuptools import setup


def read_version(path):
  with io.open(path, encoding='utf-8') as infile:
    match = re.search(r"^VERSION = '([^']+)'", infile.read(), re.MULTILINE)
  assert match, "No VERSION in {}".format(path)
  return match.group(1)


with io.open('README.rst', encoding='utf8') as infile:
  long_description = infile.read()

setup(
    name='chrootcmd',
    packages=['chrootcmd'],
    package_data={'chrootcmd': ['demo/*.py']},
    version=read_version('chrootcmd/__init__.py'),
    description="Build and run chroot(1) command lines",
    long_description=long_description,
    long_description_content_type='text/x-rst',
    keywords=['chroot', 'linux', 'sandbox'],
    python_requires='>=3.6',
    extras_require={
        'test': ['pytest>=7'],
    },
    entry_points={
        'console_scripts': ['chrootcmd=chrootcmd.__main__:main'],
    }
)
