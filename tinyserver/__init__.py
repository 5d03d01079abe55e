NAME = "tinyserver"
VERSION = "0.1.0dev"
