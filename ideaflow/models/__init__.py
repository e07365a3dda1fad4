"""
IdeaFlow
Model package.

``db`` is the shared Flask-SQLAlchemy handle; the domain entities in this
package are plain dataclasses persisted as documents through
``ideaflow.store``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
