"""
Models for parsed Dockerfile instructions.
"""
from typing import List, Optional
from pydantic import BaseModel

class Instruction(BaseModel):
    """
    A single Dockerfile instruction.

    `exec_form` is True when the arguments were written as a JSON array
    (e.g. CMD ["transcript"]), in which case `arguments` holds the argv.
    In shell form `arguments` holds the whole remainder of the line.
    """
    instruction: str
    arguments: List[str]
    raw: str
    exec_form: bool = False

    @property
    def text(self) -> str:
        """The arguments joined back into one string."""
        return " ".join(self.arguments)

class DockerfileAST(BaseModel):
    """
    The ordered instructions of a Dockerfile.
    """
    instructions: List[Instruction] = []

    def first(self, name: str) -> Optional[Instruction]:
        for inst in self.instructions:
            if inst.instruction == name:
                return inst
        return None

    def last(self, name: str) -> Optional[Instruction]:
        found = None
        for inst in self.instructions:
            if inst.instruction == name:
                found = inst
        return found

    def all(self, name: str) -> List[Instruction]:
        return [inst for inst in self.instructions if inst.instruction == name]
