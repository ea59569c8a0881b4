"""Domain packages: billing, licensing, feedback"""
