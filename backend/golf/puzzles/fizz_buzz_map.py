from golf.puzzles.models import Puzzle

_START = """\
function fizzbuzz(dataMap, count) {
    for (let i = 0; i < count; ++i) {
        let str = "";
        for (const k in dataMap.keys()) {
            const v = dataMap[k];
            if (i % v) {
                str += k;
            }
        }

        if (str) {
            console(str);
        }
    }
}
"""

_GOAL = """\
function fizzbuzz(dataMap, count) {
    for (let i = 0; i < count; ++i) {
        let str = "";
        for (const [k, v] of Object.entries(dataMap)) {
            if (i % v === 0) {
                str += k;
            }
        }

        if (str) {
            console.log(str);
        }
        else {
            console.log(i);
        }
    }
}
"""

PUZZLE = Puzzle.from_text("fizz-buzz-map", _START, _GOAL)
