# __init__.py
