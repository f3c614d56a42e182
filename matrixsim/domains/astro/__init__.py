"""Stars and planets: the astronomical levels of the generation cascade."""
