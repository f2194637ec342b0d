from __future__ import annotations

import argparse
import logging

import torch

import minigrad_fw as mg
from minigrad_fw import train as T
from minigrad_fw.optim import SGD, Adam

# celsius targets, readings in unknown units
T_C = [0.5, 14.0, 15.0, 28.0, 11.0, 8.0, 3.0, -4.0, 6.0, 13.0, 21.0]
T_U = [35.7, 55.9, 58.2, 81.9, 56.3, 48.9, 33.9, 21.8, 48.4, 60.4, 68.4]


def parse_args():
    ap = argparse.ArgumentParser(description="Fit t_c = w * t_u + b with minigrad_fw")
    ap.add_argument("--epochs", type=int, default=5000)
    ap.add_argument("--lr", type=float, default=1e-2)
    ap.add_argument("--optimizer", choices=("sgd", "adam"), default="sgd")
    ap.add_argument("--manual", action="store_true",
                    help="out-of-place update with detach, no optimizer object")
    ap.add_argument("--raw", action="store_true", help="skip the 0.1 input scaling")
    ap.add_argument("--val", type=float, default=0.0, help="validation fraction (0 = no split)")
    ap.add_argument("--log-every", type=int, default=500)
    ap.add_argument("--seed", type=int, default=0)
    return ap.parse_args()


def main():
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    torch.manual_seed(args.seed)

    t_u = mg.tensor(T_U)
    t_c = mg.tensor(T_C)
    scale = 1.0 if args.raw else 0.1
    cfg = T.TrainerConfig(log_every=args.log_every)
    params = [mg.Parameter(1.0, name="w"), mg.Parameter(0.0, name="b")]

    if args.manual:
        result = T.manual_training_loop(args.epochs, args.lr, params, scale * t_u, t_c, cfg=cfg)
    else:
        opt_cls = SGD if args.optimizer == "sgd" else Adam
        optimizer = opt_cls(params, lr=args.lr)

        if args.val > 0.0:
            gen = torch.Generator().manual_seed(args.seed)
            (tr_u, tr_c), (va_u, va_c) = T.split_train_val(t_u, t_c, val_fraction=args.val, generator=gen)
            result = T.training_loop(args.epochs, optimizer, params,
                                     scale * tr_u, tr_c, scale * va_u, va_c, cfg=cfg)
        else:
            result = T.training_loop(args.epochs, optimizer, params, scale * t_u, t_c, cfg=cfg)

    w, b = result.params
    print(f"w = {w.item():.4f}, b = {b.item():.4f}, final loss = {result.final_loss:.6f}")
    if result.val_losses:
        print(f"final validation loss = {result.val_losses[-1]:.6f}")

    profiler = getattr(mg.get_backend(), "profiler", None)
    if profiler is not None and profiler.enabled:
        profiler.report()


if __name__ == "__main__":
    main()
