"""The tests package for the text image generator.

The tests are written using the `pytest` framework. Fonts and background
images are synthesized at test time, so the suite needs no data files.
"""
