from .base import StateStorage
from .gitea import GiteaStorage
