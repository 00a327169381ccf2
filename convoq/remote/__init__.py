"""Remote seams - inference functions and the record store"""
