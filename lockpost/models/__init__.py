from lockpost.models.dead_letter import DeadLetterJob
from lockpost.models.purchase import Purchase
from lockpost.models.resource import Resource

__all__ = ["DeadLetterJob", "Purchase", "Resource"]
