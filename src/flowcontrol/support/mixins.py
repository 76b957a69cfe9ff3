def quote(val):
    return "'" + str(val) + "'" if val is not None else "None"


class StringerMixin:

    def __str__(self):
        """
        outputs the class name and the public attributes in key sorted order
        """
        return self.__class__.__name__ + self._sorted_items_string()

    def __repr__(self):
        return self.__str__()

    def _sorted_items_string(self):
        return "{" + ", ".join([("'" + str(key)) + "'" + ": " + (quote(val))
                                for key, val in sorted(self.__dict__.items()) if not key.startswith('_')]) + "}"


class CommonEqualityMixin(object):
    """  a deep equals comparison for value objects, based on the public attributes. """

    def __eq__(self, other):
        return isinstance(other, self.__class__) and self._public_dict() == other._public_dict()

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = None

    def _public_dict(self):
        return {k: v for k, v in self.__dict__.items() if not k.startswith('_')}
