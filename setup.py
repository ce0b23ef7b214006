#!/usr/bin/env python
from setuptools import setup, find_packages

setup(name='provider-github',
      version='0.1.0',
      description='Declarative GitHub provider: resources and data sources over the GitHub REST and GraphQL APIs',
      author='minware',
      url='https://github.com/minwareco',
      classifiers=['Programming Language :: Python :: 3 :: Only'],
      install_requires=[
          'singer-python>=6',
          'requests>=2',
          'PyJWT==2.8.0',
          'cryptography==42.0.1',
          'PyNaCl>=1.5',
      ],
      extras_require={
          'dev': [
              'pylint',
              'ipdb',
              'pytest',
          ]
      },
      entry_points='''
          [console_scripts]
          provider-github=provider_github:main
      ''',
      packages=find_packages(exclude=['tests', 'tests.*']),
)
