"""Django project package for the dispatcher backend."""
