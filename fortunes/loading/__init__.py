# Loading package for Fortunes
"""
Location resolution: filesystem paths, directories and the embedded
quote bundle, turned into Jars.
"""
