import abc


class BaseSequenceGenerator(abc.ABC):
    """
    Interface for the generator of SMPP sequence numbers used by :class:`smppsend.esme.Esme`.

    A sequence_number lets SMPP requests and their responses be correlated.
    It has to increase monotonically within the range 1 - 2,147,483,647 and wrap around afterwards.
    """

    @abc.abstractmethod
    def next_sequence(self) -> int:
        """
        returns the next sequence_number.
        """
        raise NotImplementedError("next_sequence method must be implemented.")


class SimpleSequenceGenerator(BaseSequenceGenerator):
    """
    In memory implementation of BaseSequenceGenerator.
    The first value handed out is 1.
    """

    min_sequence_number: int = 0x00000001
    max_sequence_number: int = 0x7FFFFFFF

    def __init__(self) -> None:
        self.sequence_number: int = self.min_sequence_number - 1

    def next_sequence(self) -> int:
        if self.sequence_number >= self.max_sequence_number:
            # wrap around
            self.sequence_number = self.min_sequence_number
        else:
            self.sequence_number += 1
        return self.sequence_number
