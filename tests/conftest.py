import fakes  # noqa: F401  (sets test settings before eduguide is imported)
