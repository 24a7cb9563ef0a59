"""Sample programs shipped with the simulator."""

SUM = """\
// A sample VVM Assembly program
// to add a number to the value -1.

IN        Input number to be added
ADD 99    Add value stored at address 99 to input
OUT       Output result
HLT       Halt (program ends here)
*99       Next value loaded at address 99
DAT -001  Data value"""

FIBONACCI = """\
// Fibonacci Example
// Calculate first few Fibonacci numbers

LDA 10     Load F(0) = 0
STO 20     Store result
LDA 11     Load F(1) = 1
STO 21     Store result
LDA 10     Load F(0)
ADD 11     Add F(1)
STO 22     Store F(2)
OUT        Output result
HLT        End
*10
DAT 000    F(0) = 0
DAT 001    F(1) = 1"""

MAX = """\
// Maximum of Two Numbers
// Compare two values and output larger

IN         Input first number
STO 20     Store at address 20
IN         Input second number
STO 21     Store at address 21
LDA 20     Load first number
SUB 21     Subtract second
BRP 10     If positive/zero, first is max
LDA 21     Otherwise load second
BR 11      Skip to output
*10
LDA 20     Load first number
*11
OUT        Output maximum
HLT        End"""

LOOP = """\
// Loop Counter Example
// Count from 1 to 5

LDA 20     Load counter
ADD 21     Increment by 1
STO 20     Store counter
OUT        Output current value
SUB 22     Check if reached 5
BRZ 08     If 5, halt
BR 00      Otherwise, loop back
*08
HLT        End program
*20
DAT 000    Counter starts at 0
DAT 001    Increment value
DAT 005    Limit value"""

EXAMPLES: dict[str, dict[str, str]] = {
    "sum": {"title": "Add input to -1", "source": SUM},
    "fibonacci": {"title": "Fibonacci", "source": FIBONACCI},
    "max": {"title": "Maximum of two numbers", "source": MAX},
    "loop": {"title": "Loop counter", "source": LOOP},
}
