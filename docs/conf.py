# -*- coding: utf-8 -*-
import os

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.doctest',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode'
]
source_suffix = '.rst'
master_doc = 'index'
project = 'ilp-sender'
year = '2024'
author = 'QuestDB'
copyright = '{0}, {1}'.format(year, author)
version = release = '1.0.0'

pygments_style = 'trac'
templates_path = ['.']

on_rtd = os.environ.get('READTHEDOCS', None) == 'True'

if not on_rtd:  # only set the theme if we're building docs locally
    html_theme = 'alabaster'

html_use_smartypants = True
html_last_updated_fmt = '%b %d, %Y'
html_split_index = False
html_sidebars = {
    '**': [
        'about.html',
        'searchbox.html',
        'globaltoc.html',
        'sourcelink.html'
    ],
}
html_theme_options = {
    'description': 'ILP over TCP client for QuestDB',
}
html_short_title = '%s-%s' % (project, version)

napoleon_use_ivar = True
napoleon_use_rtype = False
napoleon_use_param = False

autodoc_default_options = {
    'special-members': '__init__ , __str__ , __enter__ , __exit__',
    'undoc-members': True
}
