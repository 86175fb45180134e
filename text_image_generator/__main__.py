import fire

from text_image_generator.run_generate import run


def main():
    """The entry point of the `text-image-generator` command.

    Exposes `run_generate.run` through `fire`, so every argument of `run`
    is also a command-line flag, e.g. `--n_samples 1000 --seed 7`.
    """
    fire.Fire(run)


if __name__ == "__main__":
    main()
