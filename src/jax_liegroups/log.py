import logging

# Library logger; applications attach their own handlers.
LogWriter = logging.getLogger("jax_liegroups")
LogWriter.addHandler(logging.NullHandler())
