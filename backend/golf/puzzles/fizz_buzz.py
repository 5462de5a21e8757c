from golf.puzzles.models import Puzzle

_START = """\
    const fizz = () => {
        for (let i = 0; i < 100; ++i) {
            let str = "";
            if (i % 3 === 0) {
                str += "fizz";
            }
            if (i % 5 === 0) {
                str += "buzz";
            }
            console.log(str.length === 0 ? i : str);
        }
    };

    return fizz;
"""

_GOAL = """\
    return function() {
        for (let i = 0; i < 100; ++i) {
            let str = "";
            if (i % 3 === 0) {
                str += "fizz";
            }
            if (i % 5 === 0) {
                str += "buzz";
            }
            console.log(str || i);
        }
    };
"""

PUZZLE = Puzzle.from_text("fizz-buzz", _START, _GOAL)
